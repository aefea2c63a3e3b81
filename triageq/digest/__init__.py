"""Digest - insights, grouping, delivery timing and engagement over classified items"""
