# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the Participa DF ouvidoria gateway.

This package contains the business rules of complaint intake: sensitive data
screening, the composition wizard, media rules, submission sequencing and the
admin listing. Apart from submission, which drives injected collaborators,
all functions are pure and testable without external dependencies.
"""
