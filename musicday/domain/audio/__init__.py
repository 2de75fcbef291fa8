"""Audio domain - Upload confirmation, approvals and release visibility"""
