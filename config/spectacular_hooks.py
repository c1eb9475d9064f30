"""
Custom hooks for drf-spectacular to customize OpenAPI schema.
"""


def keep_token_auth_only(result, generator, request, public):
    """Session auth is for the browsable API; document only TokenAuth."""
    schemes = result.get('components', {}).get('securitySchemes')
    if schemes:
        result['components']['securitySchemes'] = {
            name: scheme for name, scheme in schemes.items() if name == 'TokenAuth'
        }
    return result
