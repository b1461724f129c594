"""Public open-slots booking pages"""
