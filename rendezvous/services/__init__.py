"""Outbound notification clients"""
