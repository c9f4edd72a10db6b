"""Core configuration, logging, persistence and error types"""
