"""matelytics services.

- Analytics Service: gated distributions and engagement rankings for the
  catalog dashboard
"""
