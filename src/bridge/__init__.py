"""Per-call media bridging between Twilio and the speech-AI provider.

One ``MediaBridge`` lives for the duration of one media stream websocket and
owns that call's ``SessionState``. Bookings leave the bridge through the
``BookingTrigger`` and never block audio relay.
"""
