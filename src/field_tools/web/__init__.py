"""HTTP layer"""
