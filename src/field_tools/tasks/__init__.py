"""Scheduled tasks"""
