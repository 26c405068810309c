"""User-user collaborative filtering (similar rating patterns) over chunked ratings.

Core idea:
- Read the target user's ratings from a rating store
- Scan the store chunk by chunk, keep the top-k neighbours of each chunk and
  merge them into a global top-k
- Predict ratings / recommend items from the neighbours' ratings, weighted by
  their similarity to the target
"""
