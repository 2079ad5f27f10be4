"""Coverage Bounded Context.

Responsible for RF propagation and link budgets:
- Value Objects: LinkParameters, DiffractionResult, FresnelResult, LinkEvaluation
- Services: free-space/clutter/diffraction losses, Fresnel clearance,
  evaluate_link
- Height solver: minimum extra mast height for Fresnel clearance
"""
