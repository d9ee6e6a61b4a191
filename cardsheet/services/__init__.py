"""
Collaborator services: image loading and key-value storage
"""
