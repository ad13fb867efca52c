"""Address and customer contact value objects shared by checkouts and orders."""

from protean.fields import String

from storefront.domain import storefront


@storefront.value_object
class Address:
    street = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=2)

    def is_complete(self) -> bool:
        return bool(self.street) and bool(self.country)

    def has_any(self) -> bool:
        return any([self.street, self.city, self.postal_code, self.country])


@storefront.value_object
class CustomerDetails:
    email = String(max_length=254)
    phone = String(max_length=30)
    full_name = String(max_length=200)

    def has_any(self) -> bool:
        return any([self.email, self.phone, self.full_name])
