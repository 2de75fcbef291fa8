"""Events domain - Event lookup, deal configuration and timeline"""
