"""
Outbound integrations: SMS, email and webhooks.
"""
