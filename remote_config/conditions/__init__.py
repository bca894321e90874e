"""
Condition trees and their evaluation.
"""
