"""Core infrastructure"""
