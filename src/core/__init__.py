"""Core domain package for feedsieve.

Core contains rule matching, scoping, actions and the rule cache without any
storage-specific code, keeping the business logic portable.
"""
