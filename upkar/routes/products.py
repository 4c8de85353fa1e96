from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import or_

from upkar.models import db, Product
from upkar.utils.auth import validate_pagination_params, pagination_dict

products_bp = Blueprint('products', __name__)

def search_filter(query, search):
    term = f'%{search.strip()}%'
    return query.filter(or_(
        Product.name.ilike(term),
        Product.description.ilike(term),
        Product.category.ilike(term)
    ))

@products_bp.route('', methods=['GET'])
def get_products():
    """List active products"""
    try:
        page, per_page = validate_pagination_params(
            request.args.get('page', 1), request.args.get('per_page', 20)
        )
        search = request.args.get('search', '').strip()
        category = request.args.get('category', '').strip()

        query = Product.query.filter_by(is_active=True)
        if search:
            query = search_filter(query, search)
        if category:
            query = query.filter(Product.category == category)

        pagination = query.order_by(Product.name.asc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'products': [product.to_dict() for product in pagination.items],
            'pagination': pagination_dict(pagination)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get products error: {str(e)}")
        return jsonify({'error': 'Failed to get products'}), 500

@products_bp.route('/categories', methods=['GET'])
def get_categories():
    try:
        rows = db.session.query(Product.category).filter(
            Product.is_active.is_(True),
            Product.category.isnot(None)
        ).distinct().order_by(Product.category).all()

        return jsonify({'categories': [row[0] for row in rows if row[0]]}), 200

    except Exception as e:
        current_app.logger.error(f"Get categories error: {str(e)}")
        return jsonify({'error': 'Failed to get categories'}), 500

@products_bp.route('/<int:product_id>', methods=['GET'])
def get_product(product_id):
    """Get product details"""
    try:
        product = Product.get_by_id(product_id)
        if not product or not product.is_active:
            return jsonify({'error': 'Product not found'}), 404

        return jsonify({'product': product.to_dict()}), 200

    except Exception as e:
        current_app.logger.error(f"Get product error: {str(e)}")
        return jsonify({'error': 'Failed to get product'}), 500
