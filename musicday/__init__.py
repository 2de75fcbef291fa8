"""Music day backend - school event booking, audio pipeline and parent communication"""
