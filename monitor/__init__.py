"""Wakeup monitor host process, wake handling and configuration"""
