from .database import db, BaseModel

class Product(BaseModel):
    __tablename__ = 'products'

    # Basic Information
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)
    image_url = db.Column(db.String(500), nullable=True)

    # Pricing and Inventory
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock = db.Column(db.Integer, default=0, nullable=False)

    # Status
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Relationships
    cart_items = db.relationship('CartItem', backref='product', lazy=True, cascade='all, delete-orphan')
    order_items = db.relationship('OrderItem', backref='product', lazy=True)

    @property
    def is_in_stock(self):
        """Check if product is in stock"""
        return self.stock > 0 and self.is_active

    def can_order_quantity(self, quantity):
        return self.is_active and quantity <= self.stock

    def update_stock(self, quantity_change):
        """Update stock quantity"""
        new_quantity = self.stock + quantity_change
        if new_quantity < 0:
            raise ValueError(f"Insufficient stock for {self.name}")
        self.stock = new_quantity

    def to_dict(self):
        """Convert to dictionary"""
        data = super().to_dict()
        data['is_in_stock'] = self.is_in_stock
        return data

    def __repr__(self):
        return f'<Product {self.name}>'
