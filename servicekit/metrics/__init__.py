"""Metric helpers: a timer and utilities for testing metric backends."""