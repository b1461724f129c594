"""Domain packages: failures, scheduling, open_slots, notifications"""
