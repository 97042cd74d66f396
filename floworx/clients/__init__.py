"""Client configuration documents: validation, signature guardrail and the versioned store"""
