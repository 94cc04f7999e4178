"""Internal APIs for typegit.

Note
----
This is an internal API not covered by versioning policy.
"""
