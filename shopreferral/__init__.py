"""shopreferral: coupon gating and referral pricing hooks for a commerce host."""
