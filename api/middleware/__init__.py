# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains middleware components for admin authentication,
request validation, error rendering, CORS and rate limiting in the
Participa DF gateway.
"""
