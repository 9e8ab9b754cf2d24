"""Core domain package for helplink.

Core contains locality resolution, matching, and help lifecycle logic without
any Telegram or storage-specific code, keeping the business logic portable.
"""
