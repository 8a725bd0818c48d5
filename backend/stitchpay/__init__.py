"""
StitchPay billing service.
"""
