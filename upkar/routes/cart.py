from flask import Blueprint, request, jsonify, current_app

from upkar.models import db, Cart, CartItem, Product
from upkar.utils.auth import require_approved_doctor, get_current_doctor
from upkar.utils.validation import validate_required_fields, validate_quantity

cart_bp = Blueprint('cart', __name__)

def _find_line(cart, item_id):
    item = CartItem.get_by_id(item_id)
    if not item or item.cart_id != cart.id:
        return None
    return item

@cart_bp.route('', methods=['GET'])
@require_approved_doctor
def get_cart():
    """Get the doctor's cart"""
    try:
        cart = Cart.get_or_create(get_current_doctor().id)
        db.session.commit()
        return jsonify({'cart': cart.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Get cart error: {str(e)}")
        return jsonify({'error': 'Failed to get cart'}), 500

@cart_bp.route('/items', methods=['POST'])
@require_approved_doctor
def add_to_cart():
    """Add a product to the cart, merging with an existing line for the same product"""
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'No data provided'}), 400

        validation = validate_required_fields(data, ['product_id', 'quantity'])
        if not validation['valid']:
            return jsonify({'error': validation['message']}), 400

        quantity_validation = validate_quantity(data['quantity'], allow_zero=False)
        if not quantity_validation['valid']:
            return jsonify({'error': quantity_validation['message']}), 400
        quantity = int(data['quantity'])

        product = Product.get_by_id(data['product_id'])
        if not product or not product.is_active:
            return jsonify({'error': 'Product not found'}), 404

        cart = Cart.get_or_create(get_current_doctor().id)
        item = cart.find_item(product.id)
        new_quantity = quantity + (item.quantity if item else 0)

        if not product.can_order_quantity(new_quantity):
            return jsonify({
                'error': f'Cannot add {quantity} of {product.name}. Available: {product.stock}'
                         + (f', already in cart: {item.quantity}' if item else '')
            }), 400

        if item:
            item.quantity = new_quantity
            message = 'Cart item updated successfully'
        else:
            item = CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity)
            cart.items.append(item)
            message = 'Item added to cart successfully'

        db.session.commit()

        return jsonify({
            'message': message,
            'item': item.to_dict(),
            'cart': cart.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Add to cart error: {str(e)}")
        return jsonify({'error': 'Failed to add item to cart'}), 500

@cart_bp.route('/items/<int:item_id>', methods=['PUT'])
@require_approved_doctor
def update_cart_item(item_id):
    """Set the quantity of a cart line"""
    try:
        data = request.get_json(silent=True)
        if not data or 'quantity' not in data:
            return jsonify({'error': 'Quantity is required'}), 400

        quantity_validation = validate_quantity(data['quantity'], allow_zero=False)
        if not quantity_validation['valid']:
            return jsonify({'error': quantity_validation['message']}), 400
        quantity = int(data['quantity'])

        cart = Cart.get_or_create(get_current_doctor().id)
        item = _find_line(cart, item_id)
        if not item:
            return jsonify({'error': 'Cart item not found'}), 404

        if not item.product.can_order_quantity(quantity):
            return jsonify({
                'error': f'Cannot order {quantity} of {item.product.name}. Available: {item.product.stock}'
            }), 400

        item.quantity = quantity
        db.session.commit()

        return jsonify({
            'message': 'Cart item updated successfully',
            'item': item.to_dict(),
            'cart': cart.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Update cart item error: {str(e)}")
        return jsonify({'error': 'Failed to update cart item'}), 500

@cart_bp.route('/items/<int:item_id>', methods=['DELETE'])
@require_approved_doctor
def remove_cart_item(item_id):
    try:
        cart = Cart.get_or_create(get_current_doctor().id)
        item = _find_line(cart, item_id)
        if not item:
            return jsonify({'error': 'Cart item not found'}), 404

        cart.items.remove(item)
        db.session.commit()

        return jsonify({
            'message': 'Item removed from cart',
            'cart': cart.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Remove cart item error: {str(e)}")
        return jsonify({'error': 'Failed to remove cart item'}), 500

@cart_bp.route('/clear', methods=['DELETE'])
@require_approved_doctor
def clear_cart():
    """Remove all items from the cart"""
    try:
        cart = Cart.get_or_create(get_current_doctor().id)
        cart.clear()
        db.session.commit()

        return jsonify({'message': 'Cart cleared', 'cart': cart.to_dict()}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Clear cart error: {str(e)}")
        return jsonify({'error': 'Failed to clear cart'}), 500

@cart_bp.route('/count', methods=['GET'])
@require_approved_doctor
def get_cart_count():
    try:
        cart = Cart.query.filter_by(doctor_id=get_current_doctor().id).first()
        return jsonify({'count': cart.get_total_items() if cart else 0}), 200

    except Exception as e:
        current_app.logger.error(f"Get cart count error: {str(e)}")
        return jsonify({'error': 'Failed to get cart count'}), 500
