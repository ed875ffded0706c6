from typing import Any, Dict, Optional

from flask import jsonify, request


class APIResponse:
    """Standardized API response handler"""

    @staticmethod
    def success(data: Any = None, message: str = "Success", status_code: int = 200):
        return jsonify({
            'success': True,
            'message': message,
            'data': data,
        }), status_code

    @staticmethod
    def created(data: Any = None, message: str = "Created"):
        return APIResponse.success(data, message=message, status_code=201)

    @staticmethod
    def error(message: str, errors: Optional[Dict] = None, status_code: int = 400):
        return jsonify({
            'success': False,
            'message': message,
            'errors': errors or {},
        }), status_code

    @staticmethod
    def not_found(resource: str = "Resource"):
        return APIResponse.error(message=f"{resource} not found", status_code=404)

    @staticmethod
    def handle_request_content() -> Dict[str, Any]:
        """JSON body when present, form fields otherwise"""
        if request.is_json:
            return request.get_json(silent=True) or {}
        if request.form:
            return request.form.to_dict()
        return {}


__all__ = ['APIResponse']
