# Services Module
#
# Submodules are imported directly (pos.services.database, pos.services.cache,
# pos.services.money); repositories depend on the cart and transaction models,
# which themselves use pos.services.money.
