from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required

from upkar.models import db, Notification
from upkar.utils.auth import get_current_user

notifications_bp = Blueprint('notifications', __name__)

@notifications_bp.route('', methods=['GET'])
@jwt_required()
def get_notifications():
    """Latest notifications for the current user"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404

        query = Notification.query.filter_by(user_id=user.id)
        if request.args.get('unread_only', '').lower() == 'true':
            query = query.filter_by(is_read=False)

        notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(50).all()

        return jsonify({
            'notifications': [notification.to_dict() for notification in notifications]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get notifications error: {str(e)}")
        return jsonify({'error': 'Failed to get notifications'}), 500

@notifications_bp.route('/unread-count', methods=['GET'])
@jwt_required()
def get_unread_count():
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404

        count = Notification.query.filter_by(user_id=user.id, is_read=False).count()
        return jsonify({'count': count}), 200

    except Exception as e:
        current_app.logger.error(f"Get unread count error: {str(e)}")
        return jsonify({'error': 'Failed to get unread count'}), 500

@notifications_bp.route('/<int:notification_id>/read', methods=['PUT'])
@jwt_required()
def mark_read(notification_id):
    try:
        user = get_current_user()
        notification = Notification.get_by_id(notification_id)
        if not user or not notification or notification.user_id != user.id:
            return jsonify({'error': 'Notification not found'}), 404

        notification.mark_as_read()
        db.session.commit()

        return jsonify({'message': 'Notification marked as read', 'notification': notification.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Mark notification read error: {str(e)}")
        return jsonify({'error': 'Failed to update notification'}), 500

@notifications_bp.route('/read-all', methods=['PUT'])
@jwt_required()
def mark_all_read():
    try:
        user = get_current_user()
        if not user:
            return jsonify({'error': 'User not found'}), 404

        unread = Notification.query.filter_by(user_id=user.id, is_read=False).all()
        for notification in unread:
            notification.mark_as_read()
        db.session.commit()

        return jsonify({'message': 'All notifications marked as read', 'updated': len(unread)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Mark all notifications read error: {str(e)}")
        return jsonify({'error': 'Failed to update notifications'}), 500
