"""
Planning Module
Bounded-time search planners (global_planner) and the sense-replan-move
loop that drives them (integration).
"""
