"""
MealMate order agent - turns a meal-plan grocery list into a Swiggy Instamart order.
"""

__version__ = "0.1.0"
