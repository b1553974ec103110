"""Core infrastructure: config, database, security, logging"""
