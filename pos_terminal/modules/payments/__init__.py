"""
Payment helpers (pure, no Qt, no DB):

- status.py        derive unpaid/partial/paid from (total, paid); labels and badge tokens
- calculations.py  remaining balance and payment previews
"""
