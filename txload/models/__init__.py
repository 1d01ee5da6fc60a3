"""Data models for run configuration, outcomes and the transaction API"""
