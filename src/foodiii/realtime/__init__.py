"""Real-time order feed for admin dashboards.

Events flow in one direction:
1. An HTTP write (order created / status changed) commits to the database
2. The route hands the row to the OrderEventPublisher
3. The publisher pushes an `order:update` frame to every dashboard in the
   ConnectionRegistry, pruning dead ones

Everything lives in one process: there's no broker, no replay, and a
dashboard that connects later never sees earlier events.
"""
