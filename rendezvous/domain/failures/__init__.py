"""Failure tracking per thread, participant and failure type"""
