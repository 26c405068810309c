"""Item-item collaborative filtering with adjusted cosine similarity.

The similarity matrix is built once from the full ratings corpus and then
queried for item pairs, most-similar items and item-based rating predictions.
"""
