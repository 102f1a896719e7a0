"""
Federated directly-follows graph discovery between two organizations.

Phases implemented:
- Edge reconciliation (clear or DH-based PSI)
- Homomorphic encryption engine (trivial + BFV backends)
- Secure two-party aggregation protocol
- DFG assembly and export
"""

__all__ = ["cli", "config", "crypto", "dfg", "errors", "he", "messages", "protocol", "psi", "utils"]
