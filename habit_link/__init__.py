"""
habit_link: deep-link intake and flag bridge for the habit reminder app.

Two-part contract:
  Intake:  activation events -> router -> "widget setup requested" flag in the shared store
  Bridge:  app layer asks getInitialDeepLink on the deep_link channel -> current flag value
"""

__version__ = "1.0.0"
