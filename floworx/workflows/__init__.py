"""Industry detection and n8n workflow template selection"""
