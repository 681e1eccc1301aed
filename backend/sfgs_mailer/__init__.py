"""SFGS email dispatch service"""
