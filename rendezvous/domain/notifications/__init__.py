"""Workspace notification channel settings"""
