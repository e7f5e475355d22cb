"""
Core — Response Renderer

Wraps successful responses in the standard envelope:
  { "success": true, "message"?: "...", "data": ..., "meta"?: {...} }

Views that already return an envelope (a dict with ``success``) are
rendered untouched.

@file core/renderers.py
"""

from rest_framework.renderers import JSONRenderer


class StandardJSONRenderer(JSONRenderer):

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = renderer_context.get('response') if renderer_context else None

        if response is not None and response.status_code >= 400:
            return super().render(data, accepted_media_type, renderer_context)

        if isinstance(data, dict) and 'success' in data:
            return super().render(data, accepted_media_type, renderer_context)

        if isinstance(data, dict) and 'results' in data and 'meta' in data:
            envelope = {
                'success': True,
                'data': data['results'],
                'meta': data['meta'],
            }
        else:
            envelope = {
                'success': True,
                'data': data,
            }

        return super().render(envelope, accepted_media_type, renderer_context)
