"""Mailbox discovery, canonical taxonomy and label provisioning"""
