"""bumpwise: coordinated, policy-driven releases for uv workspaces."""
