"""Email domain - Template matching and automated sending"""
