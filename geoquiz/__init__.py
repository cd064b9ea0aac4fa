"""
GeoQuiz: adaptive geography quiz for the terminal.

Learn Dutch municipalities and roads with a mastery-tracking learning
queue, a generic quiz engine and portable progress files.
"""

__version__ = "1.0.0"
