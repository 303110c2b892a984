"""
Third-party integrations: Google OAuth, AWS SES e-mail, Sentry.
"""
